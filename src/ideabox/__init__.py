"""
Ideabox backend package.

Server functions for ideas, backed by an embedded or a remote document store.
"""
