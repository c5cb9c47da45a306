"""Analytics package.

Pure functions over typed readings: the statistics toolkit and one analyzer
per forecast family (demand, capacity, load shedding, reliability, unit
risk, KPIs).
"""
