"""
Services module for pairgallery.

This module contains the service classes behind the screens:
- RemoteDataGateway: hosted table access (REST + realtime) and its in-memory twin
- AuthService: password sign-in and session handling
- MediaUploadService: ImageKit/Cloudinary uploads with fallback
- ChatSession, GallerySession, VaultSession, ReactionBoard, CommentThread:
  screen sessions kept in sync through an optimistic ledger
- AppSettings: locally persisted theme, slideshow and vault preferences
"""

from .auth import AuthService, UserInfo, get_auth_service
from .chat import ChatSession
from .feedback import CommentThread, ReactionBoard
from .gallery import GalleryFilter, GallerySession
from .gateway import GatewayResult, Order, RemoteDataGateway, RestGateway, SubscriptionHandle
from .media_inspector import MediaInspector, get_media_inspector
from .media_upload import MediaUploadService, UploadProgress, get_media_upload_service
from .memory_gateway import InMemoryGateway
from .preferences import AppSettings, load_settings
from .vault import VaultGate, VaultSession, move_to_vault

__all__ = [
    "AuthService",
    "UserInfo",
    "get_auth_service",
    "ChatSession",
    "CommentThread",
    "ReactionBoard",
    "GalleryFilter",
    "GallerySession",
    "GatewayResult",
    "Order",
    "RemoteDataGateway",
    "RestGateway",
    "SubscriptionHandle",
    "InMemoryGateway",
    "MediaInspector",
    "get_media_inspector",
    "MediaUploadService",
    "UploadProgress",
    "get_media_upload_service",
    "AppSettings",
    "load_settings",
    "VaultGate",
    "VaultSession",
    "move_to_vault",
]
