"""
domain - Pure types, task payloads, ports and the error taxonomy.

No I/O and no vendor imports. Everything else depends on this package.
"""
