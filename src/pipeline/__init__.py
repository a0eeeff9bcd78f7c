"""
Conversion Pipeline

Sequential stages run per request:
1. Validate / ConnectStorage - destination and bucket
2. CheckExistence - storage lookup, then CDN probe
3. Download / Transform - fetch and make transparent
4. Upload - full-size WebP, then the thumbnail
"""
