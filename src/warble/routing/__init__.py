"""Routing — the router tree and the compiled route table.

``Router`` is the mutable registration surface (groups, middleware,
deferred registration factories). ``Router.build()`` flattens it into
``Route`` definitions, which ``RouteTable`` compiles for matching.
"""
