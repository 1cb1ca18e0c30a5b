"""
Server-side range scan over the PP sorted set.

KEYS[1]  sorted set of score keys, scored by PP
ARGV[1]  window min
ARGV[2]  window max
ARGV[3]  "any", or "mods" to require a non-empty modifier mask
ARGV[4]  "none", or a target BPM
ARGV[5]  BPM margin
ARGV[6]  highest accepted precision tier
ARGV[7]  "any", or the discipline a score must belong to
ARGV[8]  offset into the window
ARGV[9]  number of entries to scan
ARGV[10] maximum number of keys to accept

Returns the number of entries scanned followed by the accepted keys, so a
caller paging through the window can tell an exhausted index from a chunk
that merely filtered everything out.
"""

RANGE_SCAN_LUA = """
local ids = redis.call('ZRANGEBYSCORE', KEYS[1], ARGV[1], ARGV[2],
    'LIMIT', tonumber(ARGV[8]), tonumber(ARGV[9]))
local modFilter = ARGV[3]
local bpmFilter = ARGV[4]
local bpmMargin = tonumber(ARGV[5])
local precisionCap = tonumber(ARGV[6])
local discipline = ARGV[7]
local maxResults = tonumber(ARGV[10])

local result = {#ids}
local count = 0

for _, id in ipairs(ids) do
    if count >= maxResults then break end

    local fields = redis.call('HMGET', id, 'precision', 'mods', 'type', 'bpm')
    local precision = tonumber(fields[1] or '9') or 9
    local mods = fields[2]
    local mode = fields[3]
    local bpm = tonumber(fields[4] or '0') or 0

    local keep = precision <= precisionCap
    if keep and discipline ~= 'any' then
        keep = mode == discipline
    end
    if keep and bpmFilter ~= 'none' then
        keep = math.abs(bpm - tonumber(bpmFilter)) <= bpmMargin
    end
    if keep and modFilter ~= 'any' then
        keep = mods ~= false and mods ~= '' and mods ~= '0'
    end

    if keep then
        table.insert(result, id)
        count = count + 1
    end
end

return result
"""
