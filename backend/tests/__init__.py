# Force SQLModel table registration at test discovery time
import ladder.models  # noqa: F401
