"""Cypher templates for the relationship graph.

Labels, relationship types and hop bounds cannot be query parameters, so they
are formatted into the templates. Callers only format in values from
``NodeLabel``/``RelationshipType`` and integers.
"""

MERGE_NODE_QUERY_TEMPLATE = """
MERGE (n:{labels} {{id: $id}})
SET n += $properties
RETURN n.id AS id, labels(n) AS labels, properties(n) AS properties
"""

MERGE_RELATIONSHIP_QUERY_TEMPLATE = """
MATCH (a {{id: $from_id}})
MATCH (b {{id: $to_id}})
MERGE (a)-[r:{rel_type} {{id: $id}}]->(b)
SET r += $properties
RETURN r.id AS id, type(r) AS type, a.id AS from_id, b.id AS to_id, properties(r) AS properties
"""

FIND_NODE_BY_PROPERTY_QUERY_TEMPLATE = """
MATCH (n:{label})
WHERE n[$property] = $value
RETURN n.id AS id, labels(n) AS labels, properties(n) AS properties
LIMIT 1
"""

FIND_NODES_BY_NAME_QUERY_TEMPLATE = """
MATCH (n:{label})
WHERE toLower(n.name) CONTAINS toLower($name)
RETURN n.id AS id, labels(n) AS labels, properties(n) AS properties
LIMIT $limit
"""

_PATH_PROJECTION = """
RETURN [n IN nodes(path) | {id: n.id, labels: labels(n), properties: properties(n)}] AS nodes,
       [r IN relationships(path) | {
           id: r.id,
           type: type(r),
           from_id: startNode(r).id,
           to_id: endNode(r).id,
           properties: properties(r)
       }] AS relationships,
       length(path) AS path_length
ORDER BY path_length ASC
LIMIT $limit
"""

SHORTEST_PATHS_QUERY_TEMPLATE = """
MATCH (target {{id: $target_id}})
MATCH (seed:Person {{is_seed: true}})
WHERE seed.id <> target.id
MATCH path = allShortestPaths((seed)-[*1..{max_hops}]-(target))
""" + _PATH_PROJECTION.replace("{", "{{").replace("}", "}}")

ALL_PATHS_QUERY_TEMPLATE = """
MATCH (target {{id: $target_id}})
MATCH (seed:Person {{is_seed: true}})
WHERE seed.id <> target.id
MATCH path = (seed)-[*1..{max_hops}]-(target)
WHERE all(n IN nodes(path) WHERE single(m IN nodes(path) WHERE m = n))
""" + _PATH_PROJECTION.replace("{", "{{").replace("}", "}}")
