"""
pairgallery - Shared photo gallery and chat for two

A couples-oriented photo sharing application with features including:
- Shared gallery with albums by day and a slideshow viewer
- Private password-gated vault
- Per-photo reactions and comments
- 1:1 chat with optimistic sending and realtime updates
- Hosted backend gateway (PostgREST + realtime) and ImageKit/Cloudinary uploads
"""

__version__ = "0.1.0"
__author__ = "pairgallery"
__description__ = "Shared photo gallery and chat for two"
