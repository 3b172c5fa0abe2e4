"""Global configuration: constants shared by the parser and the renderer."""

# Implicit group used when a parameter appears before any group header
DEFAULT_GROUP_ID = "general"
DEFAULT_GROUP_LABEL = "General"

# Reserved group name whose parameters are hidden from default presentation
HIDDEN_GROUP_NAME = "hidden"

# Identifier sigil used by the design format for engine-internal variables
SPECIAL_VARIABLE_SIGIL = "$"

# Resolution-affecting special variables, capped by preview quality tiers
RESOLUTION_VARIABLES = ("$fn", "$fa", "$fs")

# Well-known libraries detected through include/use statements
KNOWN_LIBRARIES = ("MCAD", "BOSL2", "BOSL", "NopSCADlib", "dotSCAD")

# Orchestrator defaults
DEFAULT_DEBOUNCE_MS = 1500
DEFAULT_CACHE_CAPACITY = 10

# Engine defaults
DEFAULT_OPENSCAD_BINARY = "openscad"
DEFAULT_EXPORT_FORMAT = "stl"
