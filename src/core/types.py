"""Type aliases shared across the settlement engine.

Identifiers handed to the engine by its collaborators are opaque strings; the
engine never interprets them beyond equality.
"""

# Opaque identifiers owned by the surrounding application
type CompanyId = str
type EmployeeId = str
