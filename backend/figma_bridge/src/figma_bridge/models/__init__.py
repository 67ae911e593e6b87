# This file makes the 'models' directory a Python sub-package
# within the 'figma_bridge' package.
#
# It contains the Pydantic models for the design spec wire format,
# the handoff protocol envelope, and the data exchanged with the
# screenshot, code-analysis and component-library collaborators.
