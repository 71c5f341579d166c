"""
infrastructure.persistence - aiosqlite repositories, one per table.
"""
