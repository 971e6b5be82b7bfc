"""YShorts - cut the best moments of a YouTube video into short clips"""
