"""quotereel — image-sequence-to-video quote reels.

Composite an ordered set of background images, a quote and a watermark
into vertical video frames, and encode them into one downloadable reel.
Reels are declared in YAML manifests or driven through ReelSession.
"""

__version__ = "0.1.0"
