"""Contact relay HTTP surface."""
