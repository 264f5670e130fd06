"""
Almanac Weather Lab - Day-of-Year Climate Aggregation Engine

Components:
- calendar_index: MM-DD alignment on a leap-length calendar
- percentile: order statistics
- derived_metrics: metrics computed from fetched ones
- envelope: per-day historical band (min / p25 / p75 / max)
- averaging: all-time and decade means per day
- range_resolver: month/day ranges, including ones that wrap the year
- accumulation: running totals and threshold crossings
- window: rolling 12-month climate window with overlays
- tri_metric: temperature / evapotranspiration / light profile per day
- aggregation: request-level entry points
"""
