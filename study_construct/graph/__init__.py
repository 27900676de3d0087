"""LangGraph workflow and state for the parallel generation stage."""

# Note: Avoid importing workflow here to prevent circular imports
# Import directly from modules as needed:
# from study_construct.graph.state import GenerationState, create_generation_state
# from study_construct.graph.workflow import ParallelGenerationStage
