from flask import request

from services.errors import ValidationError


def uploaded_file_bytes(field="file"):
    upload = request.files.get(field)
    if upload is None or not upload.filename:
        raise ValidationError("No file uploaded")
    return upload.read()
