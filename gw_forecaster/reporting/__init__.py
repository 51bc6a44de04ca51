"""
Reporting: compliance checks, terminal formatters and file exports.
"""
