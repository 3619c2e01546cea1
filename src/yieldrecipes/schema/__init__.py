"""
Schema - Argument schemas and interactive prompting.

Parses the argument schemas the APIs publish into typed fields, asks
the user for each value, and validates JSON-Schema style arguments with
jsonschema.
"""
