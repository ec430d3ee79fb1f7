import enum


class SurveyStatus(str, enum.Enum):
    """Review status of a citizen survey.

    Every survey starts as PENDING; an administrator moves it to
    APPROVED or REJECTED.
    """
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class UploadCategory(str, enum.Enum):
    """Multipart file fields accepted by the survey upload endpoint.

    The value is the form field name. Each category knows the bucket
    folder its files go to and how many files one request may carry.
    """
    IMAGES = "images"
    OWNER_IMAGES = "ownerImages"
    DOCUMENTS = "documents"
    OWNER_AADHAAR_DOCS = "ownerAadhaarDocs"
    OWNER_PAN_DOCS = "ownerPanDocs"
    OWNER_OTHER_DOCS = "ownerOtherDocs"

    @property
    def folder(self):
        return _UPLOAD_FOLDERS[self]

    @property
    def max_count(self):
        return _UPLOAD_MAX_COUNTS[self]

    @property
    def is_image(self):
        return self in (UploadCategory.IMAGES, UploadCategory.OWNER_IMAGES)


_UPLOAD_FOLDERS = {
    UploadCategory.IMAGES: "survey-images",
    UploadCategory.OWNER_IMAGES: "owner-images",
    UploadCategory.DOCUMENTS: "documents",
    UploadCategory.OWNER_AADHAAR_DOCS: "owner-aadhaar-docs",
    UploadCategory.OWNER_PAN_DOCS: "owner-pan-docs",
    UploadCategory.OWNER_OTHER_DOCS: "owner-other-docs",
}

_UPLOAD_MAX_COUNTS = {
    UploadCategory.IMAGES: 5,
    UploadCategory.OWNER_IMAGES: 5,
    UploadCategory.DOCUMENTS: 10,
    UploadCategory.OWNER_AADHAAR_DOCS: 10,
    UploadCategory.OWNER_PAN_DOCS: 10,
    UploadCategory.OWNER_OTHER_DOCS: 10,
}
