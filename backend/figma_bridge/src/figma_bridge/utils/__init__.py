# This file makes the 'utils' directory a Python sub-package
# within the 'figma_bridge' package.
#
# It contains supporting pieces: the component map loader, the
# in-memory design canvas, and the Attempt result helper.
