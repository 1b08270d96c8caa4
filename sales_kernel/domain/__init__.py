"""Pure domain layer -- pricing, numbering formats, workflows, settlement. Zero I/O."""
