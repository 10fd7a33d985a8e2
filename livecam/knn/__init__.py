"""
k-nearest-neighbour classification: training data, feature extraction and voting.
"""
