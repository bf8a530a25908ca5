from typing import Optional, Dict, Any, List, Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator


QuestionKind = Literal[
    "short_answer",
    "paragraph",
    "multiple_choice",
    "checkboxes",
    "dropdown",
    "linear_scale",
    "date",
    "time",
    "unknown",
]
ImageKind = Literal["background", "header", "accent"]


class FormQuestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    entry_id: str = Field(..., alias="entryId", description="Submission field name, e.g. entry.1234567890")
    text: str = ""
    kind: QuestionKind = Field(..., alias="type")
    required: bool = False
    options: List[str] = Field(default_factory=list)
    scale_min: Optional[int] = Field(None, alias="scaleMin")
    scale_max: Optional[int] = Field(None, alias="scaleMax")
    scale_min_label: Optional[str] = Field(None, alias="scaleMinLabel")
    scale_max_label: Optional[str] = Field(None, alias="scaleMaxLabel")


class FormStructure(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    form_id: str = Field(..., alias="formId")
    title: str = "Untitled Form"
    description: str = ""
    questions: List[FormQuestion] = Field(default_factory=list)

    @field_validator("questions")
    @classmethod
    def _drop_unknown(cls, questions: List[FormQuestion]) -> List[FormQuestion]:
        return [q for q in questions if q.kind != "unknown"]

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class HistoryTurn(BaseModel):
    role: Literal["user", "model"]
    text: str


class StyleGuide(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_base64: str = Field(..., alias="imageBase64", description="data:image/...;base64,... or raw base64")
    focus_note: str = Field("", alias="focusNote")


class GeneratedImage(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str
    kind: ImageKind = Field(..., alias="imageType")
    data: str = Field(..., alias="base64", description="Raw base64 image data")
    mime_type: str = Field("image/png", alias="mimeType")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class ImageRequest(BaseModel):
    """Arguments of one generate_image call, as issued by the model."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    prompt: str = Field(..., min_length=1)
    kind: ImageKind = Field(..., alias="imageType")
    color_hint: str = Field("", alias="colorPalette")
    aspect_hint: str = Field("", alias="aspectRatio")


class PublishedForm(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    html: str
    form_id: str = Field(..., alias="formId")
    created_at: str = Field(..., alias="createdAt")


class ScrapeRequest(BaseModel):
    url: Optional[str] = None


class GenerateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    structure: Optional[FormStructure] = None
    prompt: Optional[str] = Field(None, description="The creator's styling request")
    history: List[HistoryTurn] = Field(default_factory=list)
    previous_html: str = Field("", alias="previousHtml")
    screenshot_base64: Optional[str] = Field(None, alias="screenshotBase64")
    style_guide: Optional[StyleGuide] = Field(None, alias="styleGuide")
    include_images: bool = Field(False, alias="includeImages")
    active_images: List[GeneratedImage] = Field(default_factory=list, alias="activeImages")


class GenerateImageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: Optional[str] = None
    kind: ImageKind = Field("accent", alias="imageType")
    color_hint: str = Field("", alias="colorPalette")
    aspect_hint: str = Field("", alias="aspectRatio")


class PublishRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    html: Optional[str] = None
    form_id: Optional[str] = Field(None, alias="formId")


class ScreenshotRequest(BaseModel):
    url: Optional[str] = None



class StartSessionRequest(BaseModel):
    url: Optional[str] = Field(None, description="Public Google Form URL to scrape")
    structure: Optional[FormStructure] = Field(None, description="Pre-scraped structure, skips scraping")
    metadata: Optional[Dict[str, Any]] = None


class ChatMessage(BaseModel):
    # chat turns are always authored by the creator
    role: Literal["user"] = "user"
    content: str


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str
    message: ChatMessage
    screenshot_base64: Optional[str] = Field(None, alias="screenshotBase64")
    style_guide: Optional[StyleGuide] = Field(None, alias="styleGuide")
    include_images: bool = Field(False, alias="includeImages")


class SetDocumentRequest(BaseModel):
    html: str = Field(..., description="The current generated HTML to continue from")
    title: Optional[str] = None
