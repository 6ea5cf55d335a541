"""
readflow_lib: Reading-order and structure reconstruction from positioned page text.
"""
