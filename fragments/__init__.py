# Fragments: streamed, schema-constrained code generation service.
