from datetime import datetime

from pydantic import BaseModel


class FileRecord(BaseModel):
    id: int
    original_name: str
    stored_name: str
    upload_time: datetime
    file_size: int
    upload_addr: str


class UploadOut(BaseModel):
    message: str
    filename: str
    url: str


class DeleteIn(BaseModel):
    filename: str


class LoginIn(BaseModel):
    username: str
    password: str


class LoginOut(BaseModel):
    status: str
    api_key: str
