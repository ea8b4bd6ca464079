"""Test suite for the capture-to-script generator.

Covers outline segmentation, data pool import, the outline document
format, the generator backends and the orchestrating script builder.
"""
