"""
Guild settings pipeline: normalize, merge, validate, lock and persist.
"""
