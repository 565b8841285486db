from .wrapper import DockerWrapper, ProcessResult, StarknetWrapper, VenvWrapper
