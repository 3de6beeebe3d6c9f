"""Content-negotiated request binding.

Input types are dataclasses whose fields declare where their values
come from (``param(path=True)``, ``param(json="name")``, ...).
``resolve_decoders()`` picks decoders from those tags and the request's
content type; ``bind_input()`` applies them and builds the instance.
"""
