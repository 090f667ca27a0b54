from .run import ConvertResult, build_encoder, convert_file, target_path

__all__ = ["ConvertResult", "build_encoder", "convert_file", "target_path"]
