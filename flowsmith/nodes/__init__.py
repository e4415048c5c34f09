"""Flowsmith Nodes - Node definitions and the runtime implementation of each action node kind."""
