"""Wire message and API payload definitions"""
from typing import List, Optional
from typing_extensions import Literal, NotRequired, TypedDict


class PointDict(TypedDict):
    x: float
    y: float


class SizeDict(TypedDict):
    width: float
    height: float


class OverlayDict(TypedDict):
    id: str
    position: PointDict
    size: SizeDict
    style: str
    direction: str
    flipHorizontal: bool
    flipVertical: bool
    isSelected: bool


class ImageOptionsDict(TypedDict):
    flipHorizontal: bool
    flipVertical: bool


class LastFrameDelayDict(TypedDict):
    enabled: bool
    value: int


class LoopingDict(TypedDict):
    mode: str
    loops: int


class ConfigurationOptions(TypedDict):
    numberOfFrames: int
    frameDelay: int
    lastFrameDelay: LastFrameDelayDict
    looping: LoopingDict
    size: int


class DisplayMetricsDict(TypedDict):
    renderedWidth: float
    renderedHeight: float


class JobMessage(TypedDict):
    type: Literal["JOB"]
    jobId: str
    configurationOptions: ConfigurationOptions
    overlayList: List[OverlayDict]
    imageTransformOptions: ImageOptionsDict
    sourceImageDisplayMetrics: Optional[DisplayMetricsDict]
    sourceImageFile: bytes


class CancelMessage(TypedDict):
    type: Literal["CANCEL"]
    jobId: str


class ProgressMessage(TypedDict):
    type: Literal["PROGRESS"]
    jobId: str
    progress: float


class ResultMessage(TypedDict):
    type: Literal["RESULT"]
    jobId: str
    gifBlob: bytes
    resultDataUrl: str


class FailureMessage(TypedDict):
    type: Literal["FAILURE"]
    jobId: str
    error: str


class CancelledMessage(TypedDict):
    type: Literal["CANCELLED"]
    jobId: str


class CreateSessionRequest(TypedDict):
    image: str
    filename: NotRequired[str]
    renderedWidth: NotRequired[float]
    renderedHeight: NotRequired[float]


class OverlayUpdateRequest(TypedDict, total=False):
    delta: PointDict
    position: PointDict
    size: SizeDict
    style: str
    direction: str


class FlipRequest(TypedDict):
    axis: str


class ReorderRequest(TypedDict):
    activeId: str
    overId: str


class SessionView(TypedDict):
    id: str
    state: str
    mode: str
    warning: Optional[str]
    overlays: List[OverlayDict]
    imageOptions: ImageOptionsDict
    renderConfiguration: ConfigurationOptions


class RenderStatus(TypedDict):
    state: str
    jobId: Optional[str]
    progress: int
    failure: Optional[str]
    successCount: int
    successMessage: Optional[str]
    resultIsCurrent: bool


class ErrorResponse(TypedDict):
    error: str
    traceback: Optional[str]
