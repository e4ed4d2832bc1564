"""Object storage client for S3-compatible REST APIs.

This package provides a blocking connector for AWS S3, MinIO, and other
S3-compatible services: object upload/download/delete, bucket listing,
pre-signed URLs, and multipart uploads.
"""

from .body import Body
from .chunking import PART_SIZE_BYTES, NoMoreParts, PartPlan, plan_part
from .client import (
    ACL_AUTHENTICATED_READ,
    ACL_BUCKET_OWNER_FULL_CONTROL,
    ACL_BUCKET_OWNER_READ,
    ACL_PRIVATE,
    ACL_PUBLIC_READ,
    ACL_PUBLIC_READ_WRITE,
    BucketInfo,
    BucketListing,
    BucketOwner,
    CommonPrefix,
    ListingPage,
    MultipartSession,
    ObjectMetadata,
    RequestExecutor,
    S3Request,
    S3Response,
    Signer,
    StorageObjectRef,
)
from .connector import S3Connector
from .errors import (
    DeleteObjectError,
    ErrorDetail,
    GetObjectError,
    InvalidInputError,
    ListBucketsError,
    ListObjectsError,
    PutObjectError,
    StorageError,
)
from .multipart import MultipartUploader

__all__ = [
    "ACL_AUTHENTICATED_READ",
    "ACL_BUCKET_OWNER_FULL_CONTROL",
    "ACL_BUCKET_OWNER_READ",
    "ACL_PRIVATE",
    "ACL_PUBLIC_READ",
    "ACL_PUBLIC_READ_WRITE",
    "Body",
    "BucketInfo",
    "BucketListing",
    "BucketOwner",
    "CommonPrefix",
    "DeleteObjectError",
    "ErrorDetail",
    "GetObjectError",
    "InvalidInputError",
    "ListBucketsError",
    "ListObjectsError",
    "ListingPage",
    "MultipartSession",
    "MultipartUploader",
    "NoMoreParts",
    "ObjectMetadata",
    "PART_SIZE_BYTES",
    "PartPlan",
    "PutObjectError",
    "RequestExecutor",
    "S3Connector",
    "S3Request",
    "S3Response",
    "Signer",
    "StorageError",
    "StorageObjectRef",
    "plan_part",
]
