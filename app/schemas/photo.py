from pydantic import BaseModel


class PhotoResponse(BaseModel):
    id: str
    user_id: str
    file_path: str
    original_filename: str
    content_type: str
    file_size: int
    created_at: str

    model_config = {"from_attributes": True}
