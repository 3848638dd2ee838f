"""
Rendering Module
===============

Layered Pillow rendering of a template against one data row.

Components:
- content: Effective content resolution for bound and static elements
- asset_cache: Memoization of generated QR bitmaps
- qr_encoder: QR symbol encoding into colored bitmaps
- image_loader: Async image decoding from URLs, data URIs and files
- renderer: Compositing of the ordered element list onto one surface
"""
