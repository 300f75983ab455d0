"""Hey DJ song request backend"""
