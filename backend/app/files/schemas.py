"""Pydantic schemas for the file store.

This module defines the data models for file sharing in the chatroom:
- DatePartition: year/month/day directory an upload lands in
- StoredFile: result of a single upload (immutable)
- FileEntry: one child of a listed directory
- FileListResponse / FileUploadResponse: HTTP response bodies

Files are stored in date-partitioned directories (YYYY/MM/DD/) with
timestamp-prefixed filenames to prevent collisions. There is no metadata
database; the directory tree is the index.
"""
from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class DatePartition(BaseModel):
    """A year/month/day directory under the storage root."""
    absolutePath: str = Field(..., description="Filesystem path used for writing")
    relativePath: str = Field(..., description="Forward-slash path, e.g. 2023/11/14")


class StoredFile(BaseModel):
    """An uploaded file as written to disk.

    Created once per upload and never modified; there is no delete API.
    """
    model_config = ConfigDict(frozen=True)

    storageName: str = Field(..., description="<epoch-ms>-<original name>")
    partitionPath: str = Field(..., description="Partition the file was written to")
    publicUrl: str = Field(..., description="URL the file is served from")
    originalName: str = Field(..., description="Filename as supplied by the client")
    sizeBytes: int = Field(0, description="Number of bytes written")


class FileEntry(BaseModel):
    """One direct child of a listed directory.

    sizeBytes is the file length in bytes, and 0 for directories.
    """
    name: str
    isDirectory: bool
    sizeBytes: int = 0
    modifiedAt: datetime


class FileListResponse(BaseModel):
    files: List[FileEntry]


class FileUploadResponse(BaseModel):
    """Response after successful file upload.

    Returned by POST /upload. The client relays ``url`` and ``originalName``
    as a chat message of kind ``file``.
    """
    fileName: str = Field(..., description="Storage name on disk")
    url: str = Field(..., description="Public URL to fetch the file")
    originalName: str = Field(..., description="Filename as uploaded")
