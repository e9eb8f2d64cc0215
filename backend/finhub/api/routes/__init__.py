"""
HTTP routers, one module per dashboard area. Mounted under /api in main.py.
"""
