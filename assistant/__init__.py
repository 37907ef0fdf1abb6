"""
Bug chat assistant - turns free-text problem reports into structured bug drafts.
"""
