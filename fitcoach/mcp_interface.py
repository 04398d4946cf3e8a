"""
MCP Interface Layer using fastmcp so agents can talk to the coaching engine.

Run with `python -m fitcoach.mcp_interface`.
"""
from typing import Any, Dict, List, Optional

from fastmcp import FastMCP

from fitcoach.services.coaching_engine import CoachingEngine
from fitcoach.utils.config import config
from fitcoach.utils.logging_config import get_logger

logger = get_logger(__name__)

# Initialize FastMCP application
mcp = FastMCP('Fitness Coach')
engine = CoachingEngine()


@mcp.tool()
def generate_coaching_response(session_id: str,
                               message: str,
                               user_profile: Optional[Dict[str, Any]] = None,
                               workout_history: Optional[List[Dict[str, Any]]] = None,
                               nutrition_log: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """Answer a user message as the fitness coach.

    Args:
        session_id: Conversation session ID
        message: User message
        user_profile: Profile dict (name, age, height, weight, bodyFatPercentage, targetPhysique, activityLevel), omit if none
        workout_history: Logged workouts, each with at least id and date
        nutrition_log: Logged food entries with id, date, food, calories, protein, carbs and fat

    Returns:
        Dict with content, suggestions, confidence, personalized and optional action and data

    Raises:
        ValueError: If the session ID is missing
    """
    if not session_id or not session_id.strip():
        raise ValueError('Session ID is required')

    response = engine.generate_response(message, user_profile, workout_history, nutrition_log, session_id=session_id)

    logger.debug(f'MCP coaching response for session {session_id}: action={response.action}')
    return response.to_dict()


@mcp.tool()
def get_memory_stats(session_id: str) -> Optional[Dict[str, Any]]:
    """Get memory tier counts and learning model accuracy for a session.

    Args:
        session_id: Conversation session ID

    Returns:
        Dict of counts, model_accuracy and prediction_count, or None for an unknown session
    """
    if not session_id or not session_id.strip():
        raise ValueError('Session ID is required')

    return engine.get_memory_stats(session_id)


if __name__ == '__main__':
    transport = config.mcp.transport
    host = config.mcp.host
    port = config.mcp.port
    try:
        mcp.run(transport=transport, host=host, port=port)
    finally:
        engine.shutdown()
