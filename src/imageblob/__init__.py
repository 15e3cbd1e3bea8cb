from imageblob.capture import CapturedFile, CaptureStore
from imageblob.exceptions import *
from imageblob.multipart import UploadPart, decode_form, extract_filename
from imageblob.response import FileDescriptor, UploadResponse, assemble
from imageblob.server import ServerConfig, UploadServer
from imageblob.upload import UploadApp

__all__ = [
    "CapturedFile", "CaptureStore", "UploadPart", "decode_form",
    "extract_filename", "FileDescriptor", "UploadResponse", "assemble",
    "ServerConfig", "UploadServer", "UploadApp",
    "HarnessError", "ConfigurationError", "DriverBinaryMissing",
    "MalformedUpload", "StorageError", "ScenarioFailure", "ScenarioTimeout",
    "ScenarioAssertionFailure",
]

__version__ = "0.1.0"
