"""
Bug grid engine.

Filter/sort/paginate pipeline, column configuration, virtual render window
and the data-fetch orchestrator behind the bug reports table.
"""
