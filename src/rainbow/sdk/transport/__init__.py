"""
Transport layer.

The session components only depend on the abstract Transport in base.py. The default
implementation, AiohttpTransport in http.py, sends requests through the middleware
chain defined in chain.py.
"""
