"""MediaBot: conversational orchestrator for chat, math, images, and a media library."""
