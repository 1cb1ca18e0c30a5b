"""
PP range computation.

Five interchangeable algorithms map a player's rating, best scores and
progression into a [min, max] PP search window.
"""
