"""Prompt helpers for posture analysis reports."""

from __future__ import annotations

REPORT_SECTIONS = (
	"1. **Movement identification**: the sport or exercise and the specific movements shown\n"
	"2. **Posture assessment**: body position, alignment and balance\n"
	"3. **Technique points**: the key technical elements of the movement\n"
	"4. **Issues found**: posture problems or movement errors\n"
	"5. **Improvement advice**: concrete corrections and training cues\n"
	"6. **Safety notes**: anything the athlete must watch out for"
)


def analysis_system_prompt() -> str:
	"""Return the system prompt shared by video and image analysis."""
	return (
		"You are an expert sports scientist and posture coach. "
		"Write structured, practical Markdown reports that an amateur athlete can act on."
	)


def video_analysis_prompt(frame_count: int) -> str:
	"""Return the user prompt for a video sampled into `frame_count` frames."""
	return (
		f"The following {frame_count} frames were sampled in order from one sports video. "
		"Analyze the posture and movement across the clip and provide a detailed report covering:\n\n"
		f"{REPORT_SECTIONS}"
	)


def image_analysis_prompt(image_count: int) -> str:
	"""Return the user prompt for one to three still images."""
	if image_count == 1:
		intro = "Analyze the posture and movement in this sports image."
		extra = ""
	else:
		intro = f"Analyze the posture and movement in these {image_count} sports images."
		extra = (
			"\n\nThis is a comparison across images: describe each image first, then compare "
			"posture changes between them and point out the most important differences."
		)
	return f"{intro} Provide a detailed report covering:\n\n{REPORT_SECTIONS}{extra}"
