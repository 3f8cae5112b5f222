# Domain models
# Schemas, descriptors and call results
