"""
Pure domain helpers shared by the web service and the companion client.
Nothing in this package performs I/O.
"""
