"""Study Construct - turn a document into a multi-type quiz with cooperating agents."""

__version__ = "0.1.0"
