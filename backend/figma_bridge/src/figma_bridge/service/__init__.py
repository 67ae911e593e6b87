# This file makes the 'service' directory a Python sub-package
# within the 'figma_bridge' package.
#
# It contains the core logic of the bridge: design spec validation,
# the recursive tree builder, component resolution, the websocket
# handoff session, and the producer-side collaborators (screenshot
# capture, source code reading and AI analysis).
